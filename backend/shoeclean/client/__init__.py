"""Dashboard-side core: records, remote store client, sync coordinator and entity store."""
