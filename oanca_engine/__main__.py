from oanca_engine.cli import main

main()
