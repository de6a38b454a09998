import argparse
import json
import logging
import uuid

from app.config import get_settings
from app.container import ServiceContainer
from ingestion.common.services.profile_factory import ProfileFactory
from ingestion.results_ingestion.core.exceptions import BatchDispatchFailed, ResultsTemporarilyUnavailable
from ingestion.results_ingestion.core.orchestrator import BatchRequest, resolve_source
from ingestion.results_ingestion.core.partitioner import partition
from ingestion.results_ingestion.core.ticket_space import HallTicketSpace

logging.basicConfig(level=logging.INFO, format="%(message)s")
logger = logging.getLogger("ScrapeManager")


class ScrapeCLI:
    def __init__(self):
        self.parser = argparse.ArgumentParser(description="Results Harvester Scrape Manager")
        subparsers = self.parser.add_subparsers(dest="command", help="Available commands")

        # Command: plan
        parser_plan = subparsers.add_parser("plan", help="Show the enumeration breakdown and chunk plan")
        self._add_source_args(parser_plan)
        parser_plan.add_argument("--workers", type=int, default=None, help="Number of chunks/workers")

        # Command: start
        parser_start = subparsers.add_parser("start", help="Record a batch and run or queue its chunks")
        self._add_source_args(parser_start)
        parser_start.add_argument("--workers", type=int, default=None, help="Number of chunks/workers")
        parser_start.add_argument("--delay-ms", type=int, default=None, help="Politeness delay between fetches")
        parser_start.add_argument("--exam-code", type=str, default=None, help="Portal exam/session code")
        parser_start.add_argument("--local", action="store_true", help="Run chunks in-process instead of queueing")

        # Command: status
        parser_status = subparsers.add_parser("status", help="Show batch progress")
        parser_status.add_argument("batch_id", type=uuid.UUID)

        # Command: lookup
        parser_lookup = subparsers.add_parser("lookup", help="Tiered lookup of one hall ticket")
        parser_lookup.add_argument("hall_ticket", type=str)

    @staticmethod
    def _add_source_args(parser: argparse.ArgumentParser):
        parser.add_argument("--profile", type=str, help=f"Profile slug {ProfileFactory.list_available_profiles()}")
        parser.add_argument("--college", type=str, help="2-char college code (required for 'autonomous')")
        parser.add_argument("--range-start", type=str, help="Numeric hall ticket range start")
        parser.add_argument("--range-end", type=str, help="Numeric hall ticket range end")

    def run(self):
        args = self.parser.parse_args()
        if args.command is None:
            self.parser.print_help()
            return

        settings = get_settings()
        if args.command == "plan":
            self.plan(args, settings)
            return

        container = ServiceContainer.open(settings)
        try:
            if args.command == "start":
                self.start(args, container)
            elif args.command == "status":
                self.status(args.batch_id, container)
            elif args.command == "lookup":
                self.lookup(args.hall_ticket, container)
        finally:
            container.close()

    def _range_args(self, args, settings):
        if args.profile:
            return None, None
        return args.range_start or settings.HALL_TICKET_START, args.range_end or settings.HALL_TICKET_END

    def plan(self, args, settings):
        workers = args.workers or settings.SCRAPER_WORKER_COUNT
        range_start, range_end = self._range_args(args, settings)
        source = resolve_source(args.profile, args.college, range_start, range_end)
        plan = partition(source.total, workers)

        print("\n========================================")
        print("   RESULTS HARVESTER SCRAPE PLAN")
        print("========================================")
        print(f"   Total Hall Tickets: {source.total}")
        print(f"   Workers: {workers} | Chunk Size: {plan.chunk_size}")

        if isinstance(source, HallTicketSpace):
            for row in source.breakdown():
                print(f"\n   {row['regulation']} ({row['year']}) {row['branch']} [{row['branch_code']}]: {row['total_rolls']} rolls")
                for fmt in row["formats"]:
                    print(f"      - {fmt['format']}: {fmt['count']} (e.g. {fmt['sample']})")
            estimate = source.estimate_scrape_time(settings.SCRAPER_DELAY_MS)
            print(f"\n   Worst case: {estimate['worst_case_minutes']} min | Realistic: {estimate['realistic_minutes']} min")

        print("-" * 50)
        for chunk in plan.chunks:
            first = source.identifier_at(chunk.start)
            last = source.identifier_at(chunk.stop - 1)
            print(f"   Worker {chunk.index + 1}: [{chunk.start}, {chunk.stop}) {first} .. {last}")

    def start(self, args, container: ServiceContainer):
        settings = container.settings
        range_start, range_end = self._range_args(args, settings)
        request = BatchRequest(
            exam_code=args.exam_code or settings.RESULTS_EXAM_CODE,
            workers=args.workers or settings.SCRAPER_WORKER_COUNT,
            delay_ms=settings.SCRAPER_DELAY_MS if args.delay_ms is None else args.delay_ms,
            profile_slug=args.profile,
            college_code=args.college,
            range_start=range_start,
            range_end=range_end,
        )

        if args.local:
            batch_id = container.orchestrator.create_batch(request)
            print(f"\n🚀 Running batch {batch_id} locally with {request.workers} workers")
            progress = container.orchestrator.run_local(batch_id, container.new_worker, request.workers)
            print(json.dumps(progress["stats"], indent=2))
            print(f"🎉 DONE. Status: {progress['status']}")
            return

        from ingestion.tasks import dispatch_chunk
        try:
            batch_id = container.orchestrator.start_batch(request, dispatch_chunk)
        except BatchDispatchFailed as e:
            print(f"❌ Batch {e.batch_id} only partly queued: {e.reason}")
            print(f"   Inspect it with: manage_scrape.py status {e.batch_id}")
            return
        print(f"\n🚀 Batch {batch_id} queued on 'scrape_queue'")
        print(f"   Track it with: manage_scrape.py status {batch_id}")

    def status(self, batch_id: uuid.UUID, container: ServiceContainer):
        progress = container.orchestrator.get_progress(batch_id)
        if progress is None:
            print(f"❌ Batch {batch_id} not found.")
            return
        progress.pop("plan", None)
        print(json.dumps(progress, indent=2))

    def lookup(self, hall_ticket: str, container: ServiceContainer):
        try:
            result = container.lookup.lookup(hall_ticket.upper())
        except ResultsTemporarilyUnavailable as e:
            print(f"⚠️ {e}")
            return
        if not result.found:
            print("❌ Result not found.")
            return
        print(json.dumps({"source": result.source, "data": result.record.model_dump(mode="json")}, indent=2))


if __name__ == "__main__":
    ScrapeCLI().run()
