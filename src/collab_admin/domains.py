from __future__ import annotations

from typing import Optional

from .models import GuestUserRecord

EXTERNAL_MARKER = "#EXT#"


def infer_external_domain(user: GuestUserRecord) -> Optional[str]:
    """Best-effort guess of the home domain of a guest account.

    The mail address wins when it is well formed. Otherwise the guest UPN
    convention ``user_domain.com#EXT#@tenant.onmicrosoft.com`` is parsed. The
    result is a hint for reporting and never an authoritative tenant identity.
    """
    mail = user.mail
    if mail and mail.count("@") == 1:
        domain = mail.split("@", 1)[1].strip().lower()
        if domain:
            return domain

    upn = user.user_principal_name or ""
    if EXTERNAL_MARKER in upn:
        local_part = upn.split(EXTERNAL_MARKER, 1)[0]
        segments = local_part.split("_")
        if len(segments) > 1 and segments[-1]:
            return segments[-1].lower()

    return None
