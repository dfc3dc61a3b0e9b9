from dubbing_studio.cli import main

main()
