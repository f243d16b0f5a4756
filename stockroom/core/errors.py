"""Domain error taxonomy.

Services and dependencies raise these; main.py maps them to HTTP
responses through a single exception handler.  ``public_message`` is the
only text that reaches the client.

Authorization errors are deliberately vague.  ``AccessDenied`` reads
the same whether the organization exists or not, and
``Unauthenticated`` never says why the session was rejected.  The
domain errors below them (``SlugTaken``, ``LastOwner``, ...) only
describe the caller's own tenant and are returned verbatim.
"""

from __future__ import annotations


class StockroomError(Exception):
    status_code: int = 500
    public_message: str = "Internal server error"
    headers: dict[str, str] | None = None

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.public_message = message
        super().__init__(self.public_message)


# --- Authorization ---------------------------------------------------------


class Unauthenticated(StockroomError):
    status_code = 401
    public_message = "Please log in"
    headers = {"WWW-Authenticate": "Bearer"}


class OrganizationContextRequired(StockroomError):
    status_code = 400
    public_message = "Organization context required. Please select an organization."


class AccessDenied(StockroomError):
    status_code = 403
    public_message = "Access denied to this organization"


# --- Domain ----------------------------------------------------------------


class NotFound(StockroomError):
    status_code = 404
    public_message = "Not found"


class SlugTaken(StockroomError):
    status_code = 409
    public_message = "Organization slug already taken"


class AlreadyMember(StockroomError):
    status_code = 409
    public_message = "User is already a member of this organization"


class LastOwner(StockroomError):
    status_code = 409
    public_message = "Cannot remove the last owner. Transfer ownership first."


class AlreadyProcessed(StockroomError):
    status_code = 409
    public_message = "Invitation already processed"


class Expired(StockroomError):
    status_code = 410
    public_message = "Invitation expired"


class DuplicateSku(StockroomError):
    status_code = 409
    public_message = "An item with this SKU already exists"


# --- Accounts --------------------------------------------------------------


class EmailTaken(StockroomError):
    status_code = 409
    public_message = "A user with this email already exists"


class InvalidCredentials(StockroomError):
    status_code = 401
    public_message = "Invalid email or password"
