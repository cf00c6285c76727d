# tests/fakes.py

"""
In-memory stand-in for the supabase-py client: the PostgREST query-builder
subset the app uses, GoTrue (auth / auth.admin), and failure injection.

    db = FakeSupabase()
    db.fail("profiles", "insert", "permission denied", code="42501")
    db.auth.fail("invite_user_by_email", "SMTP down")

Every remote call is appended to db.log as (target, operation) so tests can
assert ordering.
"""

import copy
import itertools
from types import SimpleNamespace


class FakeAPIError(Exception):
    """Shaped like postgrest.APIError / gotrue AuthApiError: .message + .code."""

    def __init__(self, message, code=None, status=None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


# =====================================================================
# PostgREST
# =====================================================================

class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.orders = []
        self.limit_n = None
        self.single_mode = None

    # ---- operations -------------------------------------------------
    def select(self, columns="*"):
        return self

    def insert(self, data, **kwargs):
        self.op, self.payload = "insert", data
        return self

    def upsert(self, data, on_conflict=None, **kwargs):
        self.op, self.payload, self.on_conflict = "upsert", data, on_conflict
        return self

    def update(self, data, **kwargs):
        self.op, self.payload = "update", data
        return self

    def delete(self, **kwargs):
        self.op = "delete"
        return self

    # ---- filters / modifiers ----------------------------------------
    def eq(self, column, value):
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda r: r.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda r: r.get(column) in values)
        return self

    def order(self, column, desc=False, **kwargs):
        self.orders.append((column, desc))
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def single(self):
        self.single_mode = "single"
        return self

    def maybe_single(self):
        self.single_mode = "maybe"
        return self

    # ---- execution --------------------------------------------------
    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.log.append((self.table, self.op))
        self.db._maybe_fail(self.table, self.op)

        rows = self.db.tables.setdefault(self.table, [])
        handler = getattr(self, f"_run_{self.op}")
        data = handler(rows)

        if self.single_mode == "single":
            if not data:
                raise FakeAPIError("JSON object requested, multiple (or no) rows returned", "PGRST116")
            data = data[0]
        elif self.single_mode == "maybe":
            if not data:
                return None
            data = data[0]

        return SimpleNamespace(data=copy.deepcopy(data))

    def _run_select(self, rows):
        found = [r for r in rows if self._matches(r)]
        for column, desc in reversed(self.orders):
            found.sort(
                key=lambda r: (r.get(column) is None, r.get(column) if r.get(column) is not None else 0),
                reverse=desc,
            )
        if self.limit_n is not None:
            found = found[: self.limit_n]
        return found

    def _run_insert(self, rows):
        items = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = []
        for item in items:
            row = dict(item)
            row.setdefault("id", self.db.new_id(self.table))
            self.db._check_unique(self.table, row, rows)
            rows.append(row)
            inserted.append(row)
        return inserted

    def _run_upsert(self, rows):
        items = self.payload if isinstance(self.payload, list) else [self.payload]
        keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
        written = []
        for item in items:
            existing = next(
                (r for r in rows if all(r.get(k) == item.get(k) for k in keys)), None
            )
            if existing is not None:
                existing.update(item)
                written.append(existing)
            else:
                row = dict(item)
                row.setdefault("id", self.db.new_id(self.table))
                rows.append(row)
                written.append(row)
        return written

    def _run_update(self, rows):
        updated = []
        for row in rows:
            if self._matches(row):
                row.update(self.payload)
                updated.append(row)
        return updated

    def _run_delete(self, rows):
        deleted = [r for r in rows if self._matches(r)]
        self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
        return deleted


# =====================================================================
# GoTrue
# =====================================================================

class FakeAdmin:
    def __init__(self, auth):
        self._auth = auth

    def create_user(self, attributes):
        self._auth._call("create_user")
        email = attributes["email"]
        if self._auth.find_by_email(email):
            raise FakeAPIError("A user with this email address has already been registered", "email_exists", 422)
        user = self._auth.add_user(email, attributes.get("user_metadata"), attributes.get("password"))
        return SimpleNamespace(user=user)

    def delete_user(self, user_id, should_soft_delete=False):
        self._auth._call("delete_user")
        if user_id not in self._auth.users:
            raise FakeAPIError("User not found", "user_not_found", 404)
        del self._auth.users[user_id]

    def update_user_by_id(self, user_id, attributes):
        self._auth._call("update_user_by_id")
        user = self._auth.users.get(user_id)
        if user is None:
            raise FakeAPIError("User not found", "user_not_found", 404)
        if "email" in attributes:
            user.email = attributes["email"]
        if "user_metadata" in attributes:
            user.user_metadata = {**user.user_metadata, **attributes["user_metadata"]}
        if "password" in attributes:
            self._auth.passwords[user_id] = attributes["password"]
        return SimpleNamespace(user=user)

    def list_users(self, page=None, per_page=None):
        self._auth._call("list_users")
        return list(self._auth.users.values())

    def get_user_by_id(self, user_id):
        self._auth._call("get_user_by_id")
        user = self._auth.users.get(user_id)
        if user is None:
            raise FakeAPIError("User not found", "user_not_found", 404)
        return SimpleNamespace(user=user)

    def invite_user_by_email(self, email, options=None):
        self._auth._call("invite_user_by_email")
        self._auth.invites.append({"email": email, "options": options or {}})
        user = self._auth.find_by_email(email) or self._auth.add_user(email, (options or {}).get("data"))
        return SimpleNamespace(user=user)

    def sign_out(self, jwt, scope="global"):
        self._auth._call("sign_out")
        self._auth.sign_outs.append((jwt, scope))
        self._auth.tokens.pop(jwt, None)


class FakeAuth:
    def __init__(self, log):
        self.log = log
        self.users = {}
        self.passwords = {}
        self.tokens = {}
        self.invites = []
        self.sign_outs = []
        self.password_resets = []
        self.otp_tokens = {}
        self.failures = {}
        self.confirm_email = False
        self.admin = FakeAdmin(self)
        self._counter = itertools.count(1)

    # ---- helpers ----------------------------------------------------
    def fail(self, method, message, code=None, status=400):
        self.failures[method] = FakeAPIError(message, code, status)

    def _call(self, method):
        self.log.append(("auth", method))
        if method in self.failures:
            raise self.failures[method]

    def add_user(self, email, metadata=None, password=None, user_id=None):
        user_id = user_id or f"user-{next(self._counter)}"
        user = SimpleNamespace(
            id=user_id,
            email=email,
            user_metadata=dict(metadata or {}),
            created_at=f"2026-01-01T00:00:{len(self.users):02d}+00:00",
        )
        self.users[user_id] = user
        if password:
            self.passwords[user_id] = password
        return user

    def find_by_email(self, email):
        return next((u for u in self.users.values() if u.email == email), None)

    def issue_token(self, user):
        token = f"token-{user.id}"
        self.tokens[token] = user.id
        return token

    def _session_response(self, user):
        session = SimpleNamespace(
            access_token=self.issue_token(user),
            refresh_token=f"refresh-{user.id}",
            expires_in=3600,
        )
        return SimpleNamespace(user=user, session=session)

    # ---- public API -------------------------------------------------
    def sign_up(self, credentials):
        self._call("sign_up")
        email = credentials["email"]
        if self.find_by_email(email):
            raise FakeAPIError("User already registered", "user_already_exists", 422)
        metadata = (credentials.get("options") or {}).get("data")
        user = self.add_user(email, metadata, credentials.get("password"))
        if self.confirm_email:
            return SimpleNamespace(user=user, session=None)
        return self._session_response(user)

    def sign_in_with_password(self, credentials):
        self._call("sign_in_with_password")
        user = self.find_by_email(credentials["email"])
        if user is None or self.passwords.get(user.id) != credentials["password"]:
            raise FakeAPIError("Invalid login credentials", "invalid_credentials", 400)
        return self._session_response(user)

    def get_user(self, jwt=None):
        self._call("get_user")
        user_id = self.tokens.get(jwt)
        if user_id is None or user_id not in self.users:
            raise FakeAPIError("invalid JWT: unable to parse or verify signature", "bad_jwt", 401)
        return SimpleNamespace(user=self.users[user_id])

    def verify_otp(self, params):
        self._call("verify_otp")
        user_id = self.otp_tokens.get(params.get("token_hash"))
        if user_id is None:
            raise FakeAPIError("Email link is invalid or has expired", "otp_expired", 403)
        return self._session_response(self.users[user_id])

    def reset_password_for_email(self, email, options=None):
        self._call("reset_password_for_email")
        self.password_resets.append((email, options or {}))


# =====================================================================
# Client
# =====================================================================

class FakeSupabase:
    # column sets the fake enforces like a unique index
    UNIQUE = {
        "tenants": [("slug",)],
        "role_permissions": [("role", "feature")],
    }

    def __init__(self):
        self.tables = {}
        self.log = []
        self.failures = {}
        self.auth = FakeAuth(self.log)
        self._ids = itertools.count(1)

    def table(self, name):
        return FakeQuery(self, name)

    def new_id(self, table):
        return f"{table}-{next(self._ids)}"

    def seed(self, table, *rows):
        stored = self.tables.setdefault(table, [])
        for row in rows:
            row = dict(row)
            row.setdefault("id", self.new_id(table))
            stored.append(row)
        return stored[-len(rows):] if rows else []

    def rows(self, table, **filters):
        return [
            r for r in self.tables.get(table, [])
            if all(r.get(k) == v for k, v in filters.items())
        ]

    def fail(self, table, op, message, code=None, times=None):
        """Make (table, op) raise; `times` limits how many calls fail."""
        self.failures[(table, op)] = {"error": FakeAPIError(message, code), "times": times}

    def _maybe_fail(self, table, op):
        failure = self.failures.get((table, op))
        if failure is None:
            return
        if failure["times"] is not None:
            if failure["times"] <= 0:
                return
            failure["times"] -= 1
        raise failure["error"]

    def _check_unique(self, table, row, rows):
        for columns in self.UNIQUE.get(table, []):
            if any(all(r.get(c) == row.get(c) for c in columns) for r in rows):
                raise FakeAPIError(
                    f'duplicate key value violates unique constraint "{table}_{"_".join(columns)}_key"',
                    "23505",
                )

    def calls(self, target):
        return [op for t, op in self.log if t == target]


# =====================================================================
# Session helpers
# =====================================================================

def make_user(user_id="user-admin", email="owner@example.com", **kwargs):
    from dependencies.auth import CurrentUser

    return CurrentUser(id=user_id, email=email, access_token=f"token-{user_id}", **kwargs)


def make_context(roles=(), permission_rows=None, user=None):
    """
    A ready SessionContext. permission_rows defaults to the seeded matrix
    restricted to the given roles.
    """
    from core.permissions import default_matrix_rows
    from core.session import SessionContext

    user = user or make_user()
    if permission_rows is None:
        permission_rows = [r for r in default_matrix_rows() if r["role"] in roles]

    context = SessionContext(user)
    context.begin_loading()
    context.mark_ready(list(roles), permission_rows)
    return context
