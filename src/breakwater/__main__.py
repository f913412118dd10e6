from breakwater.cli.app import app

app(prog_name="breakwater")
