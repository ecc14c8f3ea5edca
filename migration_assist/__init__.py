"""Migration Assist — requirements, tasks and workflows for system migrations."""
