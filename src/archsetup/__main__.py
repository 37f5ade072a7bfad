from archsetup.app import main

main()
