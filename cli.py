import json
import sys
from pathlib import Path

from api.services.ai_summary import build_summary_view


def main() -> None:
    in_path = Path(sys.argv[1])
    out_path = Path(sys.argv[2])
    data = json.loads(in_path.read_text(encoding="utf-8"))
    if "ai_summary" in data:
        view = build_summary_view(
            data["ai_summary"],
            day_summary=data.get("day_summary"),
            engine_windows=data.get("engine_windows"),
            options=data.get("options"),
        )
    else:
        view = build_summary_view(data)
    out_path.write_text(json.dumps(view, indent=2, ensure_ascii=False), encoding="utf-8")
    print(f"Wrote summary view → {out_path}")


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python cli.py input.json output.json")
        sys.exit(1)
    main()
