"""
Destination registry and pipeline constants.
"""
from types import MappingProxyType
from typing import Mapping

from ..database.models import Commit, Engineer, JiraIssue, Project, Repository, Team
from .schemas import DestinationSchema
from .transforms import FIELD_SPECS

BYTES_PER_MB = 1024 * 1024

# Strategy thresholds, in MB
PARALLEL_THRESHOLD_MB = 100
LARGE_FILE_THRESHOLD_MB = 500
LARGE_FILE_MAX_BATCH_SIZE = 250

# Streaming progress is reported every N submitted batches
PROGRESS_EVERY_N_BATCHES = 10

_MODELS = {
    "engineer": Engineer,
    "team": Team,
    "project": Project,
    "repository": Repository,
    "issue": JiraIssue,
    "commit": Commit,
}

DESTINATIONS: Mapping[str, DestinationSchema] = MappingProxyType({
    name: DestinationSchema(name=name, model=model, fields=FIELD_SPECS[name])
    for name, model in _MODELS.items()
})
