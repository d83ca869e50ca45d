# backend/novel_insights/scripts/run_analytics.py

"""
Run the analytics engine once against DATABASE_URL.

Usage examples:

  # Everything: metrics snapshot, recommendations, patterns
  cd backend
  python -m novel_insights.scripts.run_analytics --all

  # Only regenerate recommendations
  python -m novel_insights.scripts.run_analytics --recommendations

  # Metrics and patterns
  python -m novel_insights.scripts.run_analytics --metrics --patterns

With no flags the script behaves like --all.
"""

import argparse
import logging

from sqlalchemy.orm import Session

from novel_insights.database import SessionLocal
from novel_insights.schemas.analytics import AnalysisSummary
from novel_insights.services.analytics_engine import AnalyticsEngine


def _print_summary(summary: AnalysisSummary) -> None:
    elapsed = (summary.finished_at - summary.started_at).total_seconds() if summary.finished_at else 0.0
    print(f"[run_analytics] Finished in {elapsed:.2f}s")
    print(f"  metrics recorded:          {summary.metrics_recorded}")
    print(f"  recommendations generated: {summary.recommendations_generated}")
    print(f"  recommendations saved:     {summary.recommendations_saved}")
    print(f"  patterns identified:       {summary.patterns_identified}")


def run(metrics: bool, recommendations: bool, patterns: bool) -> AnalysisSummary:
    db: Session = SessionLocal()
    try:
        return AnalyticsEngine(db).run_full_analysis(
            metrics=metrics,
            recommendations=recommendations,
            patterns=patterns,
        )
    finally:
        db.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute metrics, recommendations and reading patterns."
    )
    parser.add_argument("--metrics", action="store_true", help="Record a metric snapshot.")
    parser.add_argument("--recommendations", action="store_true", help="Generate recommendations.")
    parser.add_argument("--patterns", action="store_true", help="Identify reading patterns.")
    parser.add_argument("--all", action="store_true", help="Run every step (default).")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    run_everything = args.all or not (args.metrics or args.recommendations or args.patterns)
    summary = run(
        metrics=run_everything or args.metrics,
        recommendations=run_everything or args.recommendations,
        patterns=run_everything or args.patterns,
    )
    _print_summary(summary)
    return summary


if __name__ == "__main__":
    main()
