from plugins.chaining.cli import chain

chain(prog_name="chain")
