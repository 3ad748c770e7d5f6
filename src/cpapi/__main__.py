from cpapi.cli import cli

cli()
