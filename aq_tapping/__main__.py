from aq_tapping.run_pipeline import cli

if __name__ == "__main__":
    cli()
