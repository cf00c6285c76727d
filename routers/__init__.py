# routers/__init__.py
#
# One APIRouter per module; main.create_app() includes them directly.
