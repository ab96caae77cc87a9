from poap_ledger.cli import app

if __name__ == "__main__":
    app(prog_name="poap-ledger")
