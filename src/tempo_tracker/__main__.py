from tempo_tracker.cli.main import main

main()
