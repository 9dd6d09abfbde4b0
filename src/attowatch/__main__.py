from attowatch.cli import main

main()
