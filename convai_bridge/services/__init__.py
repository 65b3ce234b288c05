"""Service layer: polling, per-chat dispatch and conversation bookkeeping."""
