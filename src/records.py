"""In-memory catalog record shared by the parser, the store and the search index."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class CatalogRecord:
    """
    One device model and the models whose screen protector fits it.

    ``compatible_models`` is always a list here; the JSON text form only exists
    inside the storage adapter.
    """
    model_name: str
    compatible_models: List[str] = field(default_factory=list)
    is_vip: bool = False
    is_compatible: bool = False
    presentation_content: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'model_name': self.model_name,
            'compatible_models': list(self.compatible_models),
            'is_vip': self.is_vip,
            'is_compatible': self.is_compatible,
            'presentation_content': self.presentation_content,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
