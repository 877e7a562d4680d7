from vidya.interfaces.cli import main

main()
