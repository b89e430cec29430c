"""
Workflow configuration tree & dependency engine.

Pure Python: no Flask or SQLAlchemy imports. The store holds the flat,
ordered record list; every other module either projects it (tree, payload)
or edits it (editor, reorder, record_fields, resolver).
"""

from wfconfig.engine.catalog import Catalog
from wfconfig.engine.records import ConfigRecord, FileRule
from wfconfig.engine.session import ConfigSession
from wfconfig.engine.store import ConfigStore

__all__ = ["Catalog", "ConfigRecord", "ConfigSession", "ConfigStore", "FileRule"]
