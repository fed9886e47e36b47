from loadgen.cli import cli

cli()
