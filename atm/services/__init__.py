from atm.services.ledger_service import LedgerService  # noqa: F401
from atm.services.session_service import Session, SessionManager  # noqa: F401
