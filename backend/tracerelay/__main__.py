from tracerelay.main import run

run()
