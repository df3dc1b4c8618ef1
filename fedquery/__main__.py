import sys

args = sys.argv[1:]

if args and args[0] == "harness":
    from fedquery.cli.harness import run_harness

    try:
        sys.exit(run_harness(args[1:]))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
else:
    from fedquery.cli.runner import run_cli

    run_cli()
