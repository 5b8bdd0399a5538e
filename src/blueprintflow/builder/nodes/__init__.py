"""
Register every built-in node type found in this directory.

Any ``*_node.py`` module that defines a module-level ``NODE_TYPE`` is added to
the NodeRegistry on import, so a new node type needs no registration call
elsewhere.
"""

import importlib
import os

from blueprintflow.utilities.logging import get_logger

from .node_registry import EXEC_IN, EXEC_OUT, NodeData, NodeRegistry, NodeTypeSpec

logger = get_logger(__name__)

_nodes_dir = os.path.dirname(__file__)

for _filename in sorted(os.listdir(_nodes_dir)):
    if not _filename.endswith("_node.py"):
        continue
    _module = importlib.import_module(f".{_filename[:-3]}", package=__name__)
    _spec = getattr(_module, "NODE_TYPE", None)
    if not isinstance(_spec, NodeTypeSpec):
        continue
    if NodeRegistry.get(_spec.id) is None:
        NodeRegistry.register(_spec)
        logger.debug("Registered node type: %s from %s", _spec.id, _filename)

__all__ = ["EXEC_IN", "EXEC_OUT", "NodeData", "NodeRegistry", "NodeTypeSpec"]
