from __future__ import annotations
"""server/alerting/infrastructure/persistence/repositories/node_repository.py
~~~~~~~~~~~~~~~~~~~~~~~~
Repo nodes.
"""
from typing import Optional

from sqlalchemy.orm import Session

from alerting.infrastructure.persistence.database.models.node import Node


class NodeRepository:
    def __init__(self, session: Session):
        self.s = session

    def get(self, node_id: int) -> Optional[Node]:
        return self.s.get(Node, node_id)

    def add(self, *, name: str, url: str, api_key: Optional[str] = None, node_id: Optional[int] = None) -> Node:
        node = Node(id=node_id, name=name, url=url, api_key=api_key)
        self.s.add(node)
        self.s.flush()
        return node
