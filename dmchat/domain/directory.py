from __future__ import annotations

from collections.abc import Iterable

from dmchat.protocol.models import Account

UNKNOWN_SENDER = "A User"


class AccountDirectory:
    """Append-only map of account ids to usernames.

    Entries are never overwritten, so a username seen first is kept for the
    lifetime of the process even if the account is renamed later.
    """

    def __init__(self, accounts: Iterable[Account] = ()) -> None:
        self._names: dict[str, str] = {}
        self.merge(accounts)

    def merge(self, accounts: Iterable[Account]) -> int:
        added = 0
        for account in accounts:
            if account.id not in self._names:
                self._names[account.id] = account.username
                added += 1
        return added

    def resolve(self, account_id: str) -> str:
        return self._names.get(account_id, UNKNOWN_SENDER)

    def __contains__(self, account_id: object) -> bool:
        return account_id in self._names

    def __len__(self) -> int:
        return len(self._names)
