import argparse
import sys
from pathlib import Path

# Add src to path
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from autoquote.api.state import AppState
from autoquote.logging_config import configure_logging


def debug():
    parser = argparse.ArgumentParser(description="Show how a line would be priced")
    parser.add_argument("product", help="Product name or alias, e.g. 可乐")
    parser.add_argument("--partner", help="Partner name or id")
    parser.add_argument("--qty", default="1")
    parser.add_argument("--price", help="Observed price heard in speech")
    args = parser.parse_args()

    configure_logging()
    state = AppState.build()

    snapshot = state.rules_service.snapshot()
    print(f"Rules snapshot {snapshot.version}: {len(snapshot.rules)} rule(s)")
    for rejected in state.rules_service.rejected:
        print(f"  rejected {rejected.rule_id}: {rejected.reason}")

    item = {"name": args.product, "qty": args.qty}
    if args.price:
        item["price"] = args.price
    draft = state.transactions.build_draft([item], partner=args.partner)

    print(f"\nBuyer: {draft.buyer}")
    line = draft.lines[0]
    print(f"Line: {line}")

    print("\nCandidates:")
    for candidate in state.engine.matcher.find_candidates(line, draft.buyer, snapshot):
        rule = candidate.rule
        print(f"  [{rule.priority:>4}] {rule.id} {rule.scope_type.value}={rule.scope_value} "
              f"{rule.formula} ({rule.rounding or 'none'}) <- {candidate.match_reason}")

    transaction = state.engine.resolve(draft, snapshot)
    priced = transaction.lines[0]
    print("\nTrace:")
    print(priced.get_trace_text())
    print(f"\nTotal: {transaction.total_price}  Cost: {transaction.total_cost}  "
          f"Incomplete: {transaction.incomplete}")


if __name__ == "__main__":
    debug()
