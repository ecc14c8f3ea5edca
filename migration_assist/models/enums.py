from enum import Enum


class LLMProvider(str, Enum):
    CLAUDE = "claude"
    GEMINI = "gemini"
    GROQ = "groq"


class ParseStrategy(str, Enum):
    STRICT = "strict"
    PATTERN = "pattern"
    FALLBACK = "fallback"


class RequirementCategory(str, Enum):
    FUNCTIONAL = "functional"
    NON_FUNCTIONAL = "non-functional"
    SECURITY = "security"
    PERFORMANCE = "performance"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class CriterionStatus(str, Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


class ContentType(str, Enum):
    GENERAL = "general"
    WORKFLOW = "workflow"
    USER_FEEDBACK = "user_feedback"
    DOCUMENTATION = "documentation"
    SPECIFICATIONS = "specifications"


class InputDataStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class WorkflowNodeType(str, Enum):
    START = "start"
    END = "end"
    TASK = "task"
    USER_TASK = "userTask"
    DECISION = "decision"
    SUBPROCESS = "subprocess"
    PARALLEL = "parallel"
    NOTIFICATION = "notification"
    SEND = "send"
    RECEIVE = "receive"


class ActivityType(str, Enum):
    CREATED_PROJECT = "created_project"
    UPDATED_PROJECT = "updated_project"
    DELETED_PROJECT = "deleted_project"
    UPLOADED_INPUT = "uploaded_input"
    CREATED_REQUIREMENT = "created_requirement"
    UPDATED_REQUIREMENT = "updated_requirement"
    DELETED_REQUIREMENT = "deleted_requirement"
    GENERATED_REQUIREMENTS = "generated_requirements"
    GENERATED_ACCEPTANCE_CRITERIA = "generated_acceptance_criteria"
    CREATED_TASK = "created_task"
    UPDATED_TASK = "updated_task"
    DELETED_TASK = "deleted_task"
    GENERATED_TASKS = "generated_tasks"
    CREATED_WORKFLOW = "created_workflow"
    UPDATED_WORKFLOW = "updated_workflow"
    DELETED_WORKFLOW = "deleted_workflow"
    GENERATED_WORKFLOW = "generated_workflow"
