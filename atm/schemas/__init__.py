from atm.schemas.account import AccountRecord, NewAccount, RegisteredAccount  # noqa: F401
from atm.schemas.transaction import NewTransaction, TransactionRecord  # noqa: F401
