"""
AuthGate Configuration
======================
Policy constants, post-login routing table and flow paths.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Union

from .models import ADMIN_CONTENT, ADMIN_SUPERADMIN, ROLE_ADMIN, ROLE_EXPERT
from .otp.models import OtpConfig
from .rate_limit.models import ThrottlePolicy

# role -> path, or role -> {sub_role -> path}
Destinations = Dict[str, Union[str, Dict[str, str]]]

DEFAULT_DESTINATIONS: Destinations = {
    ROLE_ADMIN: {
        ADMIN_SUPERADMIN: "/super-admin",
        ADMIN_CONTENT: "/content-admin",
    },
    ROLE_EXPERT: "/tenaga-ahli",
}


@dataclass
class RoleRoutes:
    """Post-login destination table, keyed by role and admin sub-role."""
    destinations: Destinations = field(default_factory=lambda: dict(DEFAULT_DESTINATIONS))
    default: str = "/"

    def destination_for(self, role: str, sub_role: Optional[str] = None) -> str:
        target = self.destinations.get(role)
        if isinstance(target, dict):
            return target.get(sub_role or "", self.default)
        return target or self.default


@dataclass
class AuthGateConfig:
    """Everything the flows need besides their collaborators."""
    throttle: ThrottlePolicy = field(default_factory=ThrottlePolicy)
    otp: OtpConfig = field(default_factory=OtpConfig)
    routes: RoleRoutes = field(default_factory=RoleRoutes)
    login_path: str = os.environ.get("AUTHGATE_LOGIN_PATH", "/login")
    verification_notice_path: str = os.environ.get("AUTHGATE_VERIFY_NOTICE_PATH", "/email/verify")
    post_verification_path: str = os.environ.get("AUTHGATE_POST_VERIFY_PATH", "/profile")
    session_cookie: str = os.environ.get("AUTHGATE_SESSION_COOKIE", "session")
    secure_cookies: bool = os.environ.get("AUTHGATE_SECURE_COOKIES", "true").lower() == "true"
