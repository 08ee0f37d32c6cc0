import sys
from pathlib import Path

from crysp.crysp_datatypes import Null
from crysp.crysp_runtime import ScriptRunner
from crysp.crysp_printer import Printer


def print_side_effects(result):
    for effect in result.side_effects:
        if effect.get('topics') == ['stdout']:
            print(effect.get('message', ''))


def run_script_file(file_path: str):
    """Run a Crysp script file non-interactively and exit with appropriate status."""
    runner = ScriptRunner()
    printer = Printer()
    p = Path(file_path)
    try:
        source = p.read_text(encoding="utf-8")
    except FileNotFoundError:
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        raise SystemExit(1)
    result = runner.handle_script(source)
    print_side_effects(result)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)
    if result.value is not None and not isinstance(result.value, Null):
        print(printer.pformat(result.value))


def repl():
    print("Crysp REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    runner = ScriptRunner()
    printer = Printer()

    while True:
        try:
            raw = input(">> ")
        except EOFError:
            print("\nExiting.")
            break
        line = raw.strip()
        if not line:
            continue
        if line == "exit":
            break

        # Definitions persist: every line runs in the same global context.
        result = runner.handle_script(raw)
        print_side_effects(result)
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            continue
        print(printer.pformat(result.value))


def main(argv=None):
    """Run a script file when provided, otherwise start the interactive REPL."""
    argv = sys.argv[1:] if argv is None else argv
    if argv and not argv[0].startswith("-"):
        run_script_file(argv[0])
        return
    try:
        repl()
    except KeyboardInterrupt:
        print("\nExiting.")


if __name__ == "__main__":
    main()
