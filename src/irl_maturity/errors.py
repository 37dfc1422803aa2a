"""Typed failures raised by the assessment engine."""


class AssessmentError(Exception):
    """Base class for every failure reported to callers of the engine."""


class NotFound(AssessmentError):
    pass


class SessionNotFound(NotFound):
    def __init__(self, session_id):
        super().__init__(f"Assessment {session_id} not found")
        self.session_id = session_id


class QuestionNotFound(NotFound):
    def __init__(self, question_id):
        super().__init__(f"Question {question_id} not found")
        self.question_id = question_id


class ProjectNotFound(NotFound):
    def __init__(self, project_id):
        super().__init__(f"Project {project_id} not found")
        self.project_id = project_id


class InvalidState(AssessmentError):
    pass


class NotInProgress(InvalidState):
    def __init__(self, session_id):
        super().__init__(f"Assessment {session_id} is not in progress")
        self.session_id = session_id


class WrongAssessmentType(InvalidState):
    pass


class QuickAssessmentRequired(InvalidState):
    def __init__(self, project_id):
        super().__init__(
            f"Quick assessment must be completed before starting deep assessment (project {project_id})"
        )
        self.project_id = project_id


class StaleSession(InvalidState):
    """Another writer saved the session after it was loaded."""

    def __init__(self, session_id, expected_version):
        super().__init__(
            f"Assessment {session_id} was modified concurrently (expected version {expected_version})"
        )
        self.session_id = session_id
        self.expected_version = expected_version


class NotAuthorized(AssessmentError):
    pass


class NotUnlockedError(NotAuthorized):
    def __init__(self, module, irl_phase):
        super().__init__(f"{module.value}-{irl_phase.value} is not yet unlocked")
        self.module = module
        self.irl_phase = irl_phase


class ValidationError(AssessmentError):
    pass


class CatalogError(AssessmentError):
    """The question catalog could not be queried."""
