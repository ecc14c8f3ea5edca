"""
LLM prompt templates.

All prompts used for model calls live here; services render them with
``render_prompt`` and never build prompts inline.
"""

# ── Requirements ─────────────────────────────────────────

REQUIREMENTS_SYSTEM_PROMPT = (
    "You are a business analyst specializing in requirement extraction for "
    "software migration projects. Extract detailed, specific requirements from "
    "provided content and format them as valid JSON with no additional text."
)

REQUIREMENTS_GENERATION_PROMPT = """
You are a business analyst with expertise in software migration projects. Analyze the provided content and extract clear, detailed requirements for implementing the described functionality in a target system.

Project: {project_name}
Content Type: {content_type}
File: {file_name}
{chunk_note}
{content_focus}

Content to analyze:
{context}

Extract at least {min_requirements} requirements from this content if the content supports it. For each requirement:
1. Provide a concise title (3-10 words) that summarizes the requirement
2. Provide a detailed, specific description of at least 150 words that explains what needs to be implemented
3. Classify it into one of these categories: 'functional', 'non-functional', 'security', 'performance'
4. Assign a priority level: 'high', 'medium', or 'low'

Explain the 'why' behind each requirement as well as the 'what', and resolve ambiguities in the source material where you can.

Respond with a valid JSON array in this format:
[
  {
    "title": "Requirement title",
    "description": "Detailed requirement description...",
    "category": "functional|non-functional|security|performance",
    "priority": "high|medium|low",
    "source": "Generated from document analysis"
  }
]
"""

CONTENT_TYPE_FOCUS = {
    "workflow": (
        "The content describes business workflows to migrate from the source system. "
        "Focus on user flows, business processes, data transformations and integration points."
    ),
    "user_feedback": (
        "The content holds users' opinions about the legacy system. "
        "Focus on pain points and requested improvements."
    ),
    "documentation": (
        "The content documents the legacy system. Identify data structures, "
        "business logic and system behaviours that must be recreated."
    ),
    "specifications": (
        "The content specifies the legacy system. Identify data structures, "
        "business logic and system behaviours that must be recreated."
    ),
    "general": "Analyze this general content and extract requirements based on the text.",
}

CHUNK_NOTE = (
    "Chunk {chunk_index} of {chunk_count}. Only extract requirements that appear in "
    "this chunk; do not guess at content from other chunks."
)

# ── Acceptance criteria ──────────────────────────────────

ACCEPTANCE_CRITERIA_SYSTEM_PROMPT = (
    "You are a business analyst specializing in high-quality acceptance criteria "
    "for software requirements. Write acceptance criteria in Gherkin format and output "
    "ONLY a valid JSON array of acceptance criteria objects, with no markdown, "
    "explanation text or code blocks."
)

ACCEPTANCE_CRITERIA_PROMPT = """
You are a business analyst with expertise in software development projects. Create acceptance criteria in Gherkin format for the following requirement.

Project Name: {project_name}
Project Description: {project_description}

Requirement: {requirement_text}

Create 3-5 acceptance criteria scenarios. Each scenario should include:
1. A descriptive title in the "Scenario: [title]" format
2. Given-When-Then steps that define the expected behavior
3. Example data or values where appropriate

Cover normal operation, edge cases and error scenarios where relevant.

Respond with a valid JSON array in this format:
[
  {
    "title": "Scenario title",
    "description": "Complete Gherkin scenario including Given-When-Then",
    "type": "functional|acceptance|error|edge case"
  }
]
"""

# ── Implementation tasks ─────────────────────────────────

IMPLEMENTATION_TASKS_SYSTEM_PROMPT = """You are a {target_system} technical architect specialized in migration projects and integrations.
Create detailed implementation tasks for {target_system} development.
Respond ONLY with valid JSON formatted as an array of implementation task objects.
Each task must have:
- title: string
- description: string
- system: string
- taskType: string (one of: "development", "integration", "configuration", "data migration", "testing")
- complexity: string (one of: "low", "medium", "high")
- estimatedHours: number
- priority: string (one of: "low", "medium", "high")
- implementationSteps: array of objects with stepNumber, stepDescription, and relevantDocumentationLinks (array of strings)

Do not include explanations, markdown formatting, or non-JSON content in your response."""

IMPLEMENTATION_TASKS_PROMPT = """
You are an expert system architect specializing in {target_system} implementation projects. Break down a software requirement into specific implementation tasks.

Project: {project_name}
Source System: {source_system}
Target System: {target_system}
Requirement: {requirement_text}

Acceptance Criteria:
{acceptance_criteria}

Create 3-6 detailed implementation tasks needed to fulfill this requirement in {target_system}. Each task should:
1. Have a specific, action-oriented title
2. Include implementation details with technical specifics for {target_system}
3. Specify the system or component where the work needs to be done
4. Include complexity and estimated effort
5. List dependencies or prerequisites where applicable
6. Break the work into numbered implementation steps with documentation links

Respond with a valid JSON array in this format:
[
  {
    "title": "Task title",
    "description": "Detailed task description with technical specifics",
    "system": "{target_system} component name",
    "taskType": "development|configuration|integration|data migration|testing",
    "complexity": "low|medium|high",
    "estimatedHours": 8,
    "dependencies": ["Prerequisite tasks or components"],
    "priority": "high|medium|low",
    "implementationSteps": [
      {"stepNumber": 1, "stepDescription": "What to do", "relevantDocumentationLinks": ["https://..."]}
    ]
  }
]
"""

# ── Workflows ────────────────────────────────────────────

WORKFLOW_SYSTEM_PROMPT = (
    "You are an expert business process analyst and workflow designer specializing "
    "in creating detailed process flows from requirements."
)

WORKFLOW_DESIGN_PROMPT = """
Analyze the software requirements below (descriptions and acceptance criteria) and design a conceptual workflow for the project {project_name}.

Requirements:
{requirements}

Use ONLY these node types for data.nodeType: Task, Subprocess, Decision, Start Event, End Event, Parallel GW, User Task, Notification, Send Event, Receive Event.

Each node:
{
  "id": "node-1",
  "type": "default",
  "position": {"x": 0, "y": 0},
  "data": {"label": "Short label", "nodeType": "Task", "description": "Optional longer description"}
}

Each edge:
{"id": "edge-1-2", "source": "node-1", "target": "node-2", "animated": false, "label": "Optional label"}

Rules:
- Exactly one "Start Event" node and at least one "End Event" node
- "Decision" nodes for branching paths, with edge labels describing each outcome
- "Task" nodes for system actions and "User Task" nodes for human actions
- "Parallel GW" nodes when activities can happen in parallel

Respond with a single JSON object: {"nodes": [...], "edges": [...]}
"""
