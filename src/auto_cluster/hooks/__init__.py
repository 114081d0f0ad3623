"""Collaborators driven after planning: Helm install, migration, DNS, notifications."""
