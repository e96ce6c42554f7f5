"""
Snapshot aggregation.

Builds the report snapshot for a visit from the latest record of every
sub-record kind, or reads the consolidated examination-data endpoint when
the caller has a consultation id.
"""
import logging
from typing import Dict, Mapping, Optional

from eyeexam.errors import ExaminationError, PartialAggregationError
from eyeexam.models.schema import ExaminationSnapshot
from eyeexam.services.emr_client import EmrClient
from eyeexam.services.envelopes import unwrap_examination_data
from eyeexam.services.repository import SubRecordRepository
from eyeexam.services.snapshot import empty_snapshot, merge, snapshot_from_examination_data

logger = logging.getLogger(__name__)

EXAMINATION_DATA_PATH = "/patients/examination-data"


def build_snapshot(visit_id: str, repositories: Mapping[str, SubRecordRepository]) -> ExaminationSnapshot:
    """Merge the latest record of each kind into one snapshot.

    Kinds without records leave their keys empty. If any kind cannot be
    fetched, PartialAggregationError is raised with the snapshot of the
    kinds that did load attached.
    """
    snapshot = empty_snapshot(visit_id)
    failures: Dict[str, Exception] = {}

    for name, repository in repositories.items():
        try:
            record = repository.latest(visit_id)
        except ExaminationError as e:
            logger.warning(f"snapshot {visit_id}: {name} unavailable: {e}")
            failures[name] = e
            continue
        if record is None:
            continue
        merge(snapshot, repository.kind.snapshot_fields(record))
        snapshot.sources[name] = record.get("id")

    if failures:
        snapshot.missing_kinds = frozenset(failures)
        raise PartialAggregationError(failures, snapshot=snapshot, causes=failures)
    return snapshot


def collect_snapshot(visit_id: str, repositories: Mapping[str, SubRecordRepository]) -> ExaminationSnapshot:
    """build_snapshot, degrading a partial failure to the partial snapshot."""
    try:
        return build_snapshot(visit_id, repositories)
    except PartialAggregationError as e:
        logger.warning(f"partial snapshot for visit {visit_id}; missing {sorted(e.failed_kinds)}")
        return e.snapshot


def load_consolidated_snapshot(client: EmrClient, consultation_id: str, visit_id: Optional[str] = None) -> ExaminationSnapshot:
    body = client.get(EXAMINATION_DATA_PATH, params={"consultation_id": consultation_id})
    data = unwrap_examination_data(body)
    logger.info(f"consolidated snapshot for consultation {consultation_id}: {len(data)} keys")
    return snapshot_from_examination_data(data, visit_id=visit_id or consultation_id)


def snapshot_for_report(
    visit_id: Optional[str],
    repositories: Mapping[str, SubRecordRepository],
    client: Optional[EmrClient] = None,
    consultation_id: Optional[str] = None,
    prefer_consolidated: bool = False,
) -> ExaminationSnapshot:
    """Snapshot for the report path.

    Uses the consolidated endpoint when asked to and a consultation id is
    known, falling back to client-side aggregation when it fails.
    """
    if prefer_consolidated and consultation_id and client is not None:
        try:
            return load_consolidated_snapshot(client, consultation_id, visit_id=visit_id)
        except ExaminationError as e:
            logger.warning(f"consolidated snapshot for consultation {consultation_id} failed ({e}); aggregating instead")
            if not visit_id:
                raise
    return collect_snapshot(visit_id, repositories)
