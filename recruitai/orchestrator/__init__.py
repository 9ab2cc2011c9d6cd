from .schema import (
    AIVerdict,
    Application,
    ApplicationStatus,
    AuthMode,
    Credentials,
    GeneratedMessage,
    Identity,
    MessageContext,
    ResumeFile,
    Role,
    Template,
    Vacancy,
)
from .resource_store import ResourceStore, ResourceState, SyncStatus
from .session import AuthFailure, AuthResult, SessionAuthority
from .workflow import ApplicationWorkflow, VerdictResult, VerdictStatus, next_statuses
from .submission import SubmissionPipeline
from .template_engine import RECOGNIZED_TOKENS, TemplateEngine
from .view_controller import Screen, ScreenStatus, View, ViewController, ViewState, resolve


__all__ = [
    'AIVerdict',
    'Application',
    'ApplicationStatus',
    'AuthMode',
    'Credentials',
    'GeneratedMessage',
    'Identity',
    'MessageContext',
    'ResumeFile',
    'Role',
    'Template',
    'Vacancy',
    'ResourceStore',
    'ResourceState',
    'SyncStatus',
    'AuthFailure',
    'AuthResult',
    'SessionAuthority',
    'ApplicationWorkflow',
    'VerdictResult',
    'VerdictStatus',
    'next_statuses',
    'SubmissionPipeline',
    'RECOGNIZED_TOKENS',
    'TemplateEngine',
    'Screen',
    'ScreenStatus',
    'View',
    'ViewController',
    'ViewState',
    'resolve',
]
