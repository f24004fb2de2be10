"""Domain services: scoring, prioritization, assignments, risk, Jira, notifications."""
