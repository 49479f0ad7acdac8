from codememory.cli.main import main

main()
