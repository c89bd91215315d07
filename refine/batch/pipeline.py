"""
Dataset refinement pipeline orchestration.

Coordinates the flow: read → augment (verify names) → encode → write occurrence
→ write event if new, for one dataset mapping.

State machine: INIT → READING → DONE | FAILED. Structural record failures are
skipped and counted; anything else aborts the run. Both end states run the
same cleanup, so the output files are always closed and a RunSummary is always
returned.
"""

import tempfile
from datetime import datetime
from pathlib import Path

from refine.batch.dedup import EventDeduplicator
from refine.batch.readers import DelimitedReader
from refine.batch.writers import StarFormatWriter
from refine.core.errors import RecordSkipped
from refine.core.mapping import DatasetMapping, RecordAugmenter
from refine.core.models import PipelineState, RunState, RunSummary
from refine.core.taxonomy import NameMatchingService, TaxonVerifier
from refine.observability.logger import RunContext, get_logger, log_run
from refine.observability.metrics import (
    lines_written_total,
    records_processed_total,
    run_duration_seconds,
    runs_total,
)

logger = get_logger(__name__)


class RefinePipeline:
    """
    Runs one dataset mapping over a source file into a star-format output pair.

    A pipeline instance can run several times; every run gets a fresh RunState.
    """

    def __init__(self, mapping: DatasetMapping, service: NameMatchingService | None = None):
        """
        Initialize the pipeline.

        Args:
            mapping: Dataset mapping to apply
            service: Name matching service (required if the mapping verifies names)
        """
        self.mapping = mapping
        allow_list = mapping.taxonomy.allow_list if mapping.taxonomy else ()
        self.verifier = TaxonVerifier(service, allow_list) if service is not None else None
        self.augmenter = RecordAugmenter(mapping, self.verifier)
        self.state = PipelineState.INIT

    def run(self, source_path: str | Path, output_dir: str | Path) -> RunSummary:
        """
        Refine a source file.

        Args:
            source_path: Raw delimited file
            output_dir: Directory receiving the events and occurrences files

        Returns:
            RunSummary with the counters as of completion or failure
        """
        mapping = self.mapping
        summary = RunSummary(dataset_id=mapping.dataset_id)
        run_state = RunState()
        self.state = PipelineState.INIT

        reader = DelimitedReader(
            source_path,
            delimiter=mapping.source.delimiter,
            quote_char=mapping.source.quote_char,
            encoding=mapping.source.encoding,
            skip_rows=mapping.source.skip_rows,
        )
        event_fields = [mapping.column_index[name] for name in mapping.event_fields]
        deduplicator = EventDeduplicator(
            run_state.seen_events,
            event_field_indexes=event_fields,
            fingerprints=run_state.event_fingerprints,
            inconsistent=run_state.inconsistent_events,
        )
        writer = StarFormatWriter(
            output_dir,
            mapping.header,
            deduplicator,
            core_file_name=mapping.output.core_file,
            extension_file_name=mapping.output.extension_file,
        )
        summary.events_path = str(writer.core_path) if writer.core_path else None
        summary.occurrences_path = str(writer.extension_path)

        try:
            with log_run(logger, mapping.dataset_id, source_path) as run:
                reader.open()
                with writer:
                    self.state = PipelineState.READING
                    self._read_loop(reader, writer, run_state, summary, run)
            self.state = PipelineState.DONE
        except Exception as e:
            # Lines already written stay on disk
            self.state = PipelineState.FAILED
            summary.error = f"{type(e).__name__}: {e}"
            logger.error(
                f"Exception caught while iterating over {source_path} at row {summary.rows_iterated}",
                extra={"dataset_id": mapping.dataset_id, "row": summary.rows_iterated},
            )
        finally:
            try:
                reader.close()
                writer.close()
            except OSError as e:
                self.state = PipelineState.FAILED
                summary.error = summary.error or f"{type(e).__name__}: {e}"
                logger.error(
                    f"Failed closing output in {output_dir}: {e}",
                    extra={"dataset_id": mapping.dataset_id},
                )
            finally:
                self._finish(summary, run_state)

        return summary

    def run_to_temp_dir(self, source_path: str | Path) -> RunSummary:
        """Run into a freshly created temporary directory."""
        output_dir = tempfile.mkdtemp(prefix=f"refine-{self.mapping.dataset_id}-")
        return self.run(source_path, output_dir)

    def _read_loop(
        self,
        reader: DelimitedReader,
        writer: StarFormatWriter,
        run_state: RunState,
        summary: RunSummary,
        run: RunContext,
    ) -> None:
        dataset_id = self.mapping.dataset_id
        while True:
            raw = reader.next_record()
            if raw is None:
                break
            summary.rows_iterated += 1
            run.row = summary.rows_iterated
            if not any(field.strip() for field in raw):
                continue

            try:
                record = self.augmenter.augment(raw, run_state, row_number=summary.rows_iterated)
            except RecordSkipped as e:
                summary.rows_skipped += 1
                records_processed_total.labels(dataset_id=dataset_id, status="skipped").inc()
                logger.warning(
                    f"Skipping row {summary.rows_iterated}: {e}",
                    extra={"rule": e.rule_name},
                )
                continue

            writer.write_occurrence(record)
            summary.occurrences_written += 1
            lines_written_total.labels(dataset_id=dataset_id, stream="occurrences").inc()

            key = self.augmenter.event_key(record)
            if key is not None and writer.write_event_if_new(record, key):
                summary.unique_events += 1
                lines_written_total.labels(dataset_id=dataset_id, stream="events").inc()

            records_processed_total.labels(dataset_id=dataset_id, status="written").inc()

    def _finish(self, summary: RunSummary, run_state: RunState) -> None:
        summary.state = self.state
        summary.finished_at = datetime.utcnow()
        summary.non_matching_names = sorted(run_state.non_matching_names)
        summary.inconsistent_events = len(run_state.inconsistent_events)

        dataset_id = self.mapping.dataset_id
        runs_total.labels(dataset_id=dataset_id, state=summary.state.value).inc()
        run_duration_seconds.labels(dataset_id=dataset_id).observe(summary.duration_seconds or 0.0)

        extra = {"dataset_id": dataset_id, "state": summary.state.value}
        logger.info(f"Iterated over {summary.rows_iterated} rows.", extra=extra)
        logger.info(f"Skipped {summary.rows_skipped} rows.", extra=extra)
        logger.info(f"Found {summary.unique_events} unique events.", extra=extra)
        if summary.inconsistent_events:
            logger.warning(f"Found {summary.inconsistent_events} inconsistent events.", extra=extra)
        logger.warning(f"Found {len(summary.non_matching_names)} non-matching names.", extra=extra)
        for name in summary.non_matching_names:
            logger.warning(name, extra=extra)
