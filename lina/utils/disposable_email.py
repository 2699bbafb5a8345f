"""
Registration blocklist of throwaway email domains.

A free trial is granted per email, so addresses from temp-mail providers would
let one person farm unlimited trials. The domain list ships as
lina/data/disposable_email_blocklist.txt; DISPOSABLE_EMAIL_BLOCKLIST points at
a replacement file.
"""
import logging
from pathlib import Path
from typing import Iterable, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_BLOCKLIST_PATH = Path(__file__).resolve().parent.parent / "data" / "disposable_email_blocklist.txt"


def email_domain(email: Optional[str]) -> Optional[str]:
    if not email or "@" not in email:
        return None
    return email.strip().lower().rsplit("@", 1)[-1] or None


class EmailBlocklist:
    def __init__(self, domains: Iterable[str] = ()):
        self.domains = frozenset(d.strip().lower() for d in domains if d and d.strip())

    @classmethod
    def from_file(cls, path: Union[str, Path, None] = None) -> "EmailBlocklist":
        """
        One domain per line, '#' comments allowed. A missing file yields an
        empty list so registration keeps working; the gap is logged.
        """
        path = Path(path) if path else DEFAULT_BLOCKLIST_PATH
        if not path.is_file():
            logger.warning("Email blocklist %s not found; registrations are not filtered", path)
            return cls()
        with path.open(encoding="utf-8") as f:
            blocklist = cls(line for line in f if not line.lstrip().startswith("#"))
        logger.info("Email blocklist: %s domains from %s", len(blocklist), path)
        return blocklist

    def __len__(self) -> int:
        return len(self.domains)

    def is_blocked(self, email: Optional[str]) -> bool:
        return email_domain(email) in self.domains
