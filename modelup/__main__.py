from modelup.cli import main

main()
