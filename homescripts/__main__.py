from homescripts.toolkit import cli

cli()
