"""CLI entrypoint for offline lifecycle demos."""

from __future__ import annotations

from argparse import ArgumentParser
import json

from deploy_annotator.demo.runner import SCENARIOS, run_scenario


def main() -> None:
    parser = ArgumentParser(description="Replay workload lifecycle scenarios in memory.")
    parser.add_argument(
        "scenario",
        nargs="?",
        default="rollout",
        choices=sorted(SCENARIOS),
        help="Scenario to run.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the emitted annotations as JSON.",
    )
    args = parser.parse_args()

    result = run_scenario(args.scenario)
    if args.json:
        print(
            json.dumps(
                [record.model_dump(mode="json") for record in result.annotations], indent=2
            )
        )
        return

    for step in result.steps:
        emitted = ", ".join(step.emitted) or "-"
        print(f"{step.action:<24} emitted={emitted}")
        for key, value in sorted(step.state.items()):
            print(f"{'':<24} {key}={value}")
    print(f"Scenario {result.name} completed with {len(result.annotations)} annotations")


if __name__ == "__main__":
    main()
