from atm.repositories.base import AccountStore  # noqa: F401
from atm.repositories.memory import InMemoryAccountStore  # noqa: F401
from atm.repositories.sql import SqlAccountStore  # noqa: F401
