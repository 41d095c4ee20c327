from nbrmap.cli import main

main()
