"""Notion API client, property codec and filter compiler."""
