"""External collaborators: submission API, CAPTCHA, lookups, notifications."""

from applyportal.services.benefit_application import (
    HttpBenefitApplicationService,
    MockBenefitApplicationService,
    SubmissionResult,
    SubmissionService,
    create_submission_service,
)
from applyportal.services.captcha import (
    CaptchaVerifier,
    HCaptchaVerifier,
    StaticCaptchaVerifier,
    create_captcha_verifier,
)
from applyportal.services.lookup import LookupService
from applyportal.services.notifications import EmailNotifier, LogEmailNotifier

__all__ = [
    "CaptchaVerifier",
    "EmailNotifier",
    "HCaptchaVerifier",
    "HttpBenefitApplicationService",
    "LogEmailNotifier",
    "LookupService",
    "MockBenefitApplicationService",
    "StaticCaptchaVerifier",
    "SubmissionResult",
    "SubmissionService",
    "create_captcha_verifier",
    "create_submission_service",
]
