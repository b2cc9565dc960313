"""Interactive command line: prompts, task dispatch and environment remediation."""
