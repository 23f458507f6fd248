from llamaprobe.cli import main

main()
