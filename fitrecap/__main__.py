from fitrecap.cli import main

main()
