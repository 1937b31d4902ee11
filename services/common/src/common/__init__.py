"""Shared configuration, logging and HTTP plumbing for services."""
